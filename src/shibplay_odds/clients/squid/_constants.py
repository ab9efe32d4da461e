"""HTTP status constants shared by the squid client."""

HTTP_BAD_REQUEST = 400
HTTP_BAD_GATEWAY = 502
