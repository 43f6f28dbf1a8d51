"""
Utility functions for loading SQL from the package's sql/ directory.
"""
from functools import lru_cache
from pathlib import Path

SQL_DIR = Path(__file__).parent / "sql"


@lru_cache(maxsize=None)
def load_sql_file(sql_filename: str) -> str:
    """
    Load a SQL script shipped with the package.

    Parameters
    ----------
    sql_filename : str
        Name of the SQL file (e.g., 'schema.sql').

    Returns
    -------
    str
        Contents of the SQL file.
    """
    sql_path = SQL_DIR / sql_filename

    if not sql_path.exists():
        raise FileNotFoundError(
            f"SQL file not found: {sql_path}\n"
            f"Expected location: {sql_path.absolute()}"
        )

    return sql_path.read_text(encoding='utf-8')
