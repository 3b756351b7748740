from .alert_model import AlertModel  # noqa: F401
from .audit_log import AuditLog  # noqa: F401
from .certificate import Certificate, CertificateChannelLink  # noqa: F401
from .channel import ChannelInstance, ChannelParam, ChannelSecret  # noqa: F401
