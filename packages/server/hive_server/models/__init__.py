# Importing every table here populates SQLModel.metadata for Alembic and create_all.
from .base import TimestampMixin, UUIDMixin  # noqa: F401
from .person import Person  # noqa: F401
from .workspace import Workspace, WorkspaceRepository, WorkspaceUser, WorkspaceUserRole  # noqa: F401
from .payment import PaymentHistory  # noqa: F401
from .feature import FeaturePhase, FeatureStory, WorkspaceFeature  # noqa: F401
from .ticket import Ticket  # noqa: F401
from .bounty import Bounty  # noqa: F401
from .chat import Chat, ChatMessage  # noqa: F401
