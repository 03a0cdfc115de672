#!/usr/bin/env python3
"""
Utility functions for reading table cells into domain records.
"""

import pandas as pd


def split_ids(cell, sep=';'):
    """Split a multi-valued cell into a tuple of ids. 'A; B' -> ('A', 'B'), NaN -> ()"""
    if cell is None or (not isinstance(cell, (list, tuple, set, frozenset)) and pd.isna(cell)):
        return ()
    if isinstance(cell, (list, tuple, set, frozenset)):
        return tuple(str(c).strip() for c in cell if str(c).strip())
    return tuple(part.strip() for part in str(cell).split(sep) if part.strip())


def parse_flag(cell, default=True):
    """Parse a yes/no style cell into a bool. Blank cells give the default."""
    if cell is None or (not isinstance(cell, str) and pd.isna(cell)):
        return default
    if isinstance(cell, str):
        text = cell.strip().lower()
        if text == '':
            return default
        if text in ('1', 'y', 'yes', 'true', 't'):
            return True
        if text in ('0', 'n', 'no', 'false', 'f'):
            return False
        raise ValueError(f"Cannot interpret '{cell}' as a yes/no flag")
    return bool(cell)


def parse_int(cell, default=0):
    """Parse an integer cell, falling back to the default for blanks."""
    if cell is None or (not isinstance(cell, str) and pd.isna(cell)):
        return default
    if isinstance(cell, str) and cell.strip() == '':
        return default
    return int(cell)
