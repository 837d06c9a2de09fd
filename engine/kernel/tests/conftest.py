"""
Engine kernel test configuration.

Shared page fixtures. Kernel tests are synchronous except the storage and
mock generator tests; PostgresStorage tests skip without DATABASE_URL.
"""

from __future__ import annotations

import pytest

PAGE = """<!DOCTYPE html>
<html lang="en">
<head><title>Acme</title></head>
<body class="page">
<header class="site-header"><nav><a href="/">Home</a><a href="/about">About</a><a href="/contact">Contact</a></nav></header>
<section id="hero"><h1>Hello</h1><p>Intro text</p></section>
<section class="features"><h2>Features</h2><ul><li>Fast</li><li>Simple</li></ul></section>
<footer><p>© 2024 Acme. All rights reserved.</p></footer>
</body>
</html>
"""

SECTIONS = """<!DOCTYPE html>
<html>
<body>
<section id="a"><h2>A</h2></section>
<section id="b"><h2>B</h2></section>
<section id="c"><h2>C</h2></section>
</body>
</html>
"""


@pytest.fixture
def page() -> str:
    return PAGE


@pytest.fixture
def sections() -> str:
    return SECTIONS
