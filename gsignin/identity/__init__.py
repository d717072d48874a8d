from gsignin.identity.gotrue import GoTrueAdminClient, IdentityBackend

__all__ = ["GoTrueAdminClient", "IdentityBackend"]
