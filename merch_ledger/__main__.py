"""
Run the HTTP API.

    python -m merch_ledger
"""

import uvicorn

from . import config


def main():
    uvicorn.run("merch_ledger.main:app", host=config.HOST, port=config.PORT, reload=False)


if __name__ == "__main__":
    main()
