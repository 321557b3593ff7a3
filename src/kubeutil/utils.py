"""Command output helpers."""


def non_empty_lines(output: str) -> list[str]:
    """Split command output into stripped lines, dropping blank ones."""
    return [line.strip() for line in output.split("\n") if line.strip()]
