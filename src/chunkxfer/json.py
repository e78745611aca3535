''' JSON encoding for the framed message headers. Both directions work in
    bytes: :func:`dumps` returns the encoded header ready to be used as a
    frame, and :func:`loads` accepts a frame as received.
'''

import msgspec


encoder = msgspec.json.Encoder()
decoder = msgspec.json.Decoder()

dumps = encoder.encode
loads = decoder.decode


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
