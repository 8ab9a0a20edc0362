"""OAuth2 ROPC session handling against the Hacienda identity provider."""
