"""Device registration model mapping MAC addresses to serials."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin


class DeviceRegistration(Base, TimestampMixin):
    """Operator-assigned serial for a device MAC address."""

    __tablename__ = "device_registrations"

    device_mac: Mapped[str] = mapped_column(String(32), primary_key=True)
    serial: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        return f"<DeviceRegistration(mac={self.device_mac}, serial={self.serial})>"
