"""Card landing page: render the card carried in a ``?d=`` token, or the plain page."""

from qrcard.card_view import render_card, render_card_html
from qrcard.logging import audit, get_logger, trace
from qrcard.records import Record
from qrcard.token import TOKEN_PARAM, decode_token

log = get_logger("web")

LANDING_HTML = """<!doctype html>
<html lang="uz"><head><meta charset="utf-8"><title>QR Generator</title></head>
<body><h1>QR va Barcode</h1><p>Matnni kiriting, natija darhol yangilanadi.</p></body></html>
"""


@trace
def create_card_app():
    """Create a Flask app that renders scanned card URLs.

    Tokens travel inside the URL only; the app keeps no state.
    """
    from flask import Flask, abort, jsonify, request

    app = Flask(__name__)

    def _incoming_records() -> list[Record] | None:
        token = request.args.get(TOKEN_PARAM)
        if token is None:
            return None
        return decode_token(token)

    @app.route("/")
    def index():
        records = _incoming_records()
        if records is None:
            return LANDING_HTML
        audit("card.viewed", logger=log, records=len(records))
        return render_card_html(render_card(records))

    @app.route("/api/card")
    def card_json():
        records = _incoming_records()
        if records is None:
            audit("card.404", logger=log, has_token=TOKEN_PARAM in request.args)
            abort(404)
        return jsonify(render_card(records).to_dict())

    return app
