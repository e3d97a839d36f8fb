PATCH_TOOL_DESCRIPTION = r"""Edit a single file with a structured patch.

Parameters:
- `path`: file to change (relative to the project root).
- `op`: `update` (default), `create` or `delete`.
- `rename`: new path; only valid with `update`. The file is moved after the patch is applied.
- `diff`: hunks for `update`; full file content for `create`. Not used for `delete`.

# Diff format (update)
One file per call. Never include `*** Update File:` / `diff --git` headers for more than one file.

Each hunk starts with an `@@` header:
- `@@` with nothing else: the hunk is located by its own lines.
- `@@ def handler(request):` anchor: the hunk is searched below the first line matching the anchor.
- Nested anchors narrow the search:
  @@ class Service
  @@     def run(self):
- `@@ -42,6 +42,7 @@` unified headers and `@@ line 42` hints are accepted as position hints.

Hunk lines:
- ` text` context line (single leading space, then the exact text)
- `-text` removed line
- `+text` added line
- An empty line is a blank context line.
- `*** End of File` after the last line anchors the hunk at the end of the file.

Rules:
1. Context and removed lines must match the file. Copy them character for character.
2. Include 1-3 lines of context around each change; add more only to disambiguate.
3. If the same lines occur more than once, add an `@@` anchor or more context.
4. Order hunks top to bottom. Hunks must not overlap.
5. Do not add line numbers to hunk lines.
6. Whitespace-only differences are tolerated, but exact text is always preferred.

# Example
```
@@ def greet(name):
-    print("hi " + name)
+    print(f"hello {name}")
```
"""

REPLACE_TOOL_DESCRIPTION = r"""Replace text in a single file.

Parameters:
- `path`: file to change (relative to the project root).
- `old_text`: text to find. Must match the file; whitespace differences are tolerated.
- `new_text`: replacement text.
- `all`: replace every occurrence (default: the match must be unique).

Rules:
1. Copy `old_text` from the file, including indentation. Do not include line numbers.
2. Include enough surrounding lines to make `old_text` unique, or set `all`.
3. `old_text` must not be empty and `new_text` must differ from it.
4. Keep edits small; issue several calls for unrelated changes.
"""
