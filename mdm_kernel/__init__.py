"""
mdm_kernel: master data request lifecycle, golden records, duplicate resolution.

The kernel owns the persistent model (requests and their owned children plus
the append-only workflow log), the pure domain rules that govern them, and
the services that apply those rules inside a caller-owned transaction.
"""

__version__ = "0.3.0"
