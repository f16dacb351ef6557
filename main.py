#!/usr/bin/env python3

import sys

from clmn.cli import main, main_menu

if __name__ == "__main__":
    try:
        if len(sys.argv) > 1:
            sys.exit(main())
        main_menu()
    except KeyboardInterrupt:
        print("\n\nInterrupted. Goodbye! 👋")
