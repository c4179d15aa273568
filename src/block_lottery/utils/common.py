"""Common utility functions for the lottery backend."""


def shorten_identity(identity: str) -> str:
    """Shorten a principal/address for display: 'SP1ABC...WXYZ'.
    Returns the first 6 and last 4 characters, separated by '...'.
    Contract principals keep their '.name' suffix.
    """
    if not identity:
        return ""
    address, dot, contract = identity.partition(".")
    if len(address) < 12:
        short = address
    else:
        short = f"{address[:6]}...{address[-4:]}"
    return f"{short}{dot}{contract}"
