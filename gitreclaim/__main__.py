"""
gitreclaim entrypoint.

Run with: python3 -m gitreclaim https://victim.website/
"""
from gitreclaim.cli.reclaimctl import main


if __name__ == "__main__":
    main()
