"""Domain models produced by the pipeline."""

from cinesync.models.screening import Screening

__all__ = ["Screening"]
