"""Session credential issuance, rotation, revocation and password recovery."""
