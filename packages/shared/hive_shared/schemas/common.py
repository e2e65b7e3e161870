from enum import Enum
from pydantic import BaseModel

class TicketStatus(str, Enum):
    DRAFT = "draft"
    READY = "ready"
    IN_PROGRESS = "in-progress"
    TEST = "test"
    DEPLOY = "deploy"
    PAY = "pay"
    COMPLETED = "completed"

class FeatureStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"

class AuthorType(str, Enum):
    HUMAN = "HUMAN"
    AGENT = "AGENT"

class ChatStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"

class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"

class MessageStatus(str, Enum):
    SENDING = "sending"
    SENT = "sent"
    ERROR = "error"

class MessageSource(str, Enum):
    USER = "user"
    AGENT = "agent"

class PaymentType(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    PAYMENT = "payment"

class Role(str, Enum):
    ADD_BOUNTY = "ADD BOUNTY"
    UPDATE_BOUNTY = "UPDATE BOUNTY"
    DELETE_BOUNTY = "DELETE BOUNTY"
    PAY_BOUNTY = "PAY BOUNTY"
    ADD_USER = "ADD USER"
    UPDATE_USER = "UPDATE USER"
    DELETE_USER = "DELETE USER"
    ADD_ROLES = "ADD ROLES"
    ADD_BUDGET = "ADD BUDGET"
    WITHDRAW_BUDGET = "WITHDRAW BUDGET"
    VIEW_REPORT = "VIEW REPORT"
    EDIT_ORG = "EDIT ORGANIZATION"

# Ordered list for the roles endpoint
BOUNTY_ROLES: list["Role"] = list(Role)

class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

class MessageResponse(BaseModel):
    message: str
