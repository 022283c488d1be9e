import mimetypes


def read_asset(path):
    # Raises OSError (missing file, directory, permissions) or ValueError (NUL in path)
    with open(path, "rb") as f:
        return f.read()


def guess_type(path):
    mime, _ = mimetypes.guess_type(str(path))
    return mime or "text/plain"
