from .doctor import run_doctor_checks
from .exporter import export_attachments

__all__ = ["export_attachments", "run_doctor_checks"]
