#!/usr/bin/env python3
from jshell.shell import main

if __name__ == "__main__":
    main()
