# AGPL-3.0 License

"""
Shared fixtures for gate tests.
"""

import pytest

from pr_gate.gate.submission import Submission

SAMPLE_DIFF = """diff --git a/src/app.py b/src/app.py
index 1111111..2222222 100644
--- a/src/app.py
+++ b/src/app.py
@@ -1,4 +1,5 @@
 import os
-import sys
+import json
+print("debug")
 
 def main():
@@ -10,2 +11,3 @@ def main():
     return 0
+    # trailing comment
 
diff --git a/README.md b/README.md
new file mode 100644
index 0000000..3333333
--- /dev/null
+++ b/README.md
@@ -0,0 +1,2 @@
+# Project
+api_key = "abcdefghijklmnopqrstuvwxyz123456"
"""


@pytest.fixture
def submission():
    return Submission.from_unified_diff(
        "acme/widgets#42",
        SAMPLE_DIFF,
        base_revision="aaa111",
        head_revision="bbb222",
        author="octocat",
        branch="feature/json",
    )
