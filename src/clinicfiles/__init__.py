"""
Clinic files: hybrid blob storage for clinical records

Stores uploaded patient files either inline inside the owning
patient -> episode -> stage record or as chunked objects in an external
chunk store, with bounded-memory streaming in both directions.
"""

__version__ = "0.1.0"
__author__ = "Clinic-AI Team"
__description__ = "Hybrid inline/chunked file storage for clinical records"
