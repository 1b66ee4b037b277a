"""
Trampolines to the main module at specrun.main,
so that `python -m specrun` works.
"""

from specrun.main import main

if __name__ == '__main__':
    main()
