# ------------------------------------------------------------
# __main__.py — `python -m movieapi --user-db local --movie-db turso`
# ------------------------------------------------------------

import argparse
import logging
import sys

from .config import DB_TYPES, load_settings
from .errors import AppError
from .main import run


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="movieapi", description="Movies & users REST API")
    parser.add_argument("-u", "--user-db", choices=DB_TYPES, help="database type for users")
    parser.add_argument("-m", "--movie-db", choices=DB_TYPES, help="database type for movies")
    args = parser.parse_args(argv)

    try:
        settings = load_settings(user_db_type=args.user_db, movie_db_type=args.movie_db)
        run(settings)
    except (AppError, ValueError) as err:
        logging.basicConfig(level=logging.INFO)
        logging.getLogger("movieapi").error("Error during initialization: %s", err, exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
