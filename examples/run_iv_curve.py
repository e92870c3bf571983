"""Run a LEED I(V) calculation from a JSON input file.

Usage examples:
  python examples/run_iv_curve.py --write-template examples/configs/iv_template.json
  python examples/run_iv_curve.py --input examples/configs/iv_template.json --log-level INFO
"""

from leedpy.workflows.iv_curve import main


if __name__ == "__main__":
    main()
