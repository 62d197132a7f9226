"""Run the field set console: python -m tm_fieldset."""

from .cli import main

raise SystemExit(main())
