"""Exception hierarchy for branchwatch."""


class BranchwatchError(Exception):
    """Base exception for branchwatch."""
    pass


class BranchListingError(BranchwatchError):
    """git for-each-ref output could not be turned into branches."""
    pass
