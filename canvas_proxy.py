import os
import re
import logging
from flask import Flask, Response, request
from flask_cors import CORS
import requests

# ----------------------
# Configuration
# ----------------------
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8080"))
ALLOWED_ORIGIN = os.getenv("ALLOWED_ORIGIN", "app://obsidian.md")
CANVAS_TIMEOUT = float(os.getenv("CANVAS_TIMEOUT")) if os.getenv("CANVAS_TIMEOUT") else None
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CANVAS_DOMAIN_PATTERN = r"^[a-z]+\.instructure\.com$"
RESERVED_PARAMS = ("canvas_domain", "access_token")

# Logging
logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger("canvas-proxy")

# ----------------------
# App Setup
# ----------------------
app = Flask(__name__)
CORS(app, origins=[ALLOWED_ORIGIN], expose_headers=["Link"])

# ----------------------
# Helpers
# ----------------------
def plain_text(message: str, status: int):
    return message, status, {"Content-Type": "text/plain; charset=utf-8"}

def redact_params(args) -> dict:
    """Copy query params for logging with the access token hidden."""
    params = args.to_dict(flat=False)
    if "access_token" in params:
        params["access_token"] = ["[redacted]"]
    return params

def forwarded_params(args) -> list:
    """Every (key, value) pair of the inbound query except the reserved keys."""
    return [(k, v) for k, v in args.items(multi=True) if k not in RESERVED_PARAMS]

def is_valid_canvas_domain(canvas_domain: str) -> bool:
    """Raises re.error if the pattern itself can't be compiled."""
    # Whole-value match: a value spanning several lines is rejected, not matched per line
    return re.fullmatch(CANVAS_DOMAIN_PATTERN, canvas_domain) is not None

# ----------------------
# Endpoints
# ----------------------
@app.route("/", defaults={"path": ""}, methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"])
@app.route("/<path:path>", methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"])
def proxy(path):
    logger.debug("query params were: %s", redact_params(request.args))

    canvas_domain = request.args.get("canvas_domain")
    if not canvas_domain:
        return plain_text("missing canvas_domain query parameter", 400)

    try:
        matched = is_valid_canvas_domain(canvas_domain)
    except re.error as e:
        logger.error("Canvas domain pattern failed: %s", e)
        return plain_text("something went wrong while parsing the Canvas domain", 500)
    if not matched:
        return plain_text("canvas_domain has bad format", 400)

    access_token = request.args.get("access_token")
    if not access_token:
        return plain_text("missing access_token query parameter", 400)

    # Form request to send to the Canvas REST API
    try:
        canvas_req = requests.Request(
            "GET",
            f"https://{canvas_domain}/api/v1{request.path}",
            params=forwarded_params(request.args),
            # Bytes so tokens outside latin-1 are sent as raw UTF-8
            headers={"Authorization": f"Bearer {access_token}".encode("utf-8")},
        ).prepare()
    except (requests.RequestException, ValueError) as e:
        # The message can echo the header value, so only the type is logged
        logger.error("Failed to form Canvas request: %s", type(e).__name__)
        return plain_text("something went wrong while forming the request to send to Canvas", 500)

    with requests.Session() as session:
        try:
            canvas_resp = session.send(canvas_req, stream=True, timeout=CANVAS_TIMEOUT)
        except requests.RequestException:
            logger.exception("Canvas request failed")
            return plain_text("something went wrong while sending the request to Canvas", 500)
        except ValueError as e:
            # http.client rejects some header values only when writing them
            logger.error("Canvas request failed: %s", type(e).__name__)
            return plain_text("something went wrong while sending the request to Canvas", 500)

        with canvas_resp:
            try:
                body = canvas_resp.content
            except requests.RequestException:
                logger.exception("Failed to read Canvas response body")
                return plain_text("something went wrong while reading the Canvas response body", 500)

            resp = Response(body, status=canvas_resp.status_code)

            link_header = canvas_resp.headers.get("Link")
            if link_header:
                resp.headers["Link"] = link_header

            # Set content type if it's going to be JSON, otherwise keep Canvas' own
            upstream_type = canvas_resp.headers.get("Content-Type")
            if canvas_resp.status_code == 200:
                resp.headers["Content-Type"] = "application/json"
            elif upstream_type:
                resp.headers["Content-Type"] = upstream_type
            else:
                del resp.headers["Content-Type"]

            # CORS
            resp.headers["Access-Control-Allow-Origin"] = ALLOWED_ORIGIN
            resp.headers["Access-Control-Expose-Headers"] = "Link"
            return resp


def main():
    logger.info("listening for requests at http://localhost:%d/", PORT)
    app.run(host=HOST, port=PORT)


if __name__ == "__main__":
    main()
