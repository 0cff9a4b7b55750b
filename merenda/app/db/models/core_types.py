import enum


class Pool(str, enum.Enum):
    daycare = "DAYCARE"
    school = "SCHOOL"


class ContractStatus(str, enum.Enum):
    active = "ACTIVE"
    inactive = "INACTIVE"
    expired = "EXPIRED"


class OrderStatus(str, enum.Enum):
    pending = "PENDING"
    confirmed = "CONFIRMED"
    delivered = "DELIVERED"
    cancelled = "CANCELLED"


class ReceiptStatus(str, enum.Enum):
    pending = "PENDING"
    confirmed = "CONFIRMED"
    partial = "PARTIAL"
    rejected = "REJECTED"
    adjusted = "ADJUSTED"
    complementary = "COMPLEMENTARY"


class MovementKind(str, enum.Enum):
    inbound = "IN"
    outbound = "OUT"
    adjust = "ADJUST"
    transfer = "TRANSFER"
    dispose = "DISPOSE"


class ConsolidationStatus(str, enum.Enum):
    pending = "PENDING"
    partial = "PARTIAL"
    complete = "COMPLETE"
    adjusted = "ADJUSTED"
