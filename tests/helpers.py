"""Helpers for building CSV text in tests."""


def make_csv(headers, rows) -> str:
    lines = [",".join(headers)] + [",".join(str(cell) for cell in row) for row in rows]
    return "\n".join(lines) + "\n"
