# app/models/enums.py

import enum


class City(str, enum.Enum):
    Chandigarh = "Chandigarh"
    Mohali = "Mohali"
    Zirakpur = "Zirakpur"
    Panchkula = "Panchkula"
    Other = "Other"


class PropertyType(str, enum.Enum):
    Apartment = "Apartment"
    Villa = "Villa"
    Plot = "Plot"
    Office = "Office"
    Retail = "Retail"


class BHK(str, enum.Enum):
    Studio = "Studio"
    One = "One"
    Two = "Two"
    Three = "Three"
    Four = "Four"


class Purpose(str, enum.Enum):
    Buy = "Buy"
    Rent = "Rent"


class Timeline(str, enum.Enum):
    ZeroToThreeMonths = "ZeroToThreeMonths"
    ThreeToSixMonths = "ThreeToSixMonths"
    MoreThanSixMonths = "MoreThanSixMonths"
    Exploring = "Exploring"


class Source(str, enum.Enum):
    Website = "Website"
    Referral = "Referral"
    WalkIn = "WalkIn"
    Call = "Call"
    Other = "Other"


class Status(str, enum.Enum):
    New = "New"
    Qualified = "Qualified"
    Contacted = "Contacted"
    Visited = "Visited"
    Negotiation = "Negotiation"
    Converted = "Converted"
    Dropped = "Dropped"


class UserRole(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"


# типы объектов, у которых указывается число комнат
BHK_PROPERTY_TYPES = frozenset({PropertyType.Apartment, PropertyType.Villa})
