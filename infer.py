"""
Top-level classification inference shim. Delegates to graphlabel.infer.main().
"""

from graphlabel.infer import main


if __name__ == '__main__':
    main()
