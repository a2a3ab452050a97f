"""Per-call redirect bounding."""

from reqflow.constants import REQUEST_NO_REDIRECTS


class RedirectPolicy:
    """Predicate deciding whether the transport may follow another redirect.

    The policy is called with the number of requests already issued in the
    redirect chain. Once that count reaches ``max_redirects`` the transport
    stops and surfaces the last redirect response instead of raising.
    ``max_redirects == -1`` stops after the very first response.

    Attributes:
        max_redirects: Resolved redirect bound for the call.
    """

    def __init__(self, max_redirects: int) -> None:
        """Initialize the policy.

        Args:
            max_redirects: Resolved bound, or -1 for no redirects.
        """
        self.max_redirects = max_redirects

    def __call__(self, via: int) -> bool:
        """Check whether the next redirect may be followed.

        Args:
            via: Number of requests already issued in the chain.

        Returns:
            True to follow the redirect, False to return the last response.
        """
        if self.max_redirects == REQUEST_NO_REDIRECTS:
            return False
        return via < self.max_redirects

    def __repr__(self) -> str:
        return f"RedirectPolicy(max_redirects={self.max_redirects})"
