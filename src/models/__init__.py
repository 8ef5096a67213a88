# Import models here so Alembic can discover them via metadata
from .base import Base  # noqa: F401
from .user import User  # noqa: F401
from .chat_session import ChatSession  # noqa: F401
from .message import Message  # noqa: F401
from .media import Media  # noqa: F401
from .artifact import Artifact  # noqa: F401
