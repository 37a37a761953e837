"""Course certificates: idempotent issuance, documents and verification."""
