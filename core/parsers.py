""" Strict JSON parser: request bodies must be a JSON object. """

from rest_framework.exceptions import ParseError
from rest_framework.parsers import JSONParser


class StrictJSONParser(JSONParser):
    def parse(self, stream, media_type=None, parser_context=None):
        # Malformed JSON already surfaces as ParseError from JSONParser.
        data = super().parse(stream, media_type, parser_context)
        if not isinstance(data, dict):
            raise ParseError("Request body must be a JSON object")
        return data
