#!/usr/bin/env python3

"""Post a Terraform plan summary to the pull request as one or more comments."""

from plancomment.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
