"""Wizard routes"""

from enum import Enum


class Route(str, Enum):
    LOGIN = "/login"
    SIGNUP = "/signup"
    DASHBOARD = "/dashboard"
    PAGE2 = "/application/page2"
    QUALIFICATIONS = "/application/page3"
    DOCUMENTS = "/application/page4"
    PREVIEW = "/application/page5"
    PAYMENT = "/application/page6"
    SUBMITTED = "/application/submitted"
