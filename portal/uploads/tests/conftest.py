import pytest

BOUNDARY = "portalboundary42"


def build_multipart(parts, boundary=BOUNDARY):
    """Encode ``parts`` in the given order.

    Each part is ``(name, "value")`` for a field or
    ``(name, (filename, content_bytes, content_type))`` for a file.
    """
    body = b""
    for name, value in parts:
        body += f"--{boundary}\r\n".encode()
        if isinstance(value, tuple):
            filename, content, ctype = value
            body += (
                f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
                f"Content-Type: {ctype}\r\n\r\n"
            ).encode()
            body += content
        else:
            body += f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode()
            body += value.encode("utf-8")
        body += b"\r\n"
    body += f"--{boundary}--\r\n".encode()
    return f"multipart/form-data; boundary={boundary}", body


@pytest.fixture
def multipart():
    return build_multipart
