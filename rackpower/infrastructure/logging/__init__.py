from rackpower.infrastructure.logging.audit import AuditLogger

__all__ = ["AuditLogger"]
