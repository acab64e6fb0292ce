DB_ID_PREFIX = "db:"
CLIENT_ID_PREFIX = "tmp-"

FRAGMENT_SELECTOR = {
    'type': 'FragmentSelector',
    'conforms_to': 'http://www.w3.org/TR/media-frags/',
    'scheme': 'xywh=pixel:',
}

IIIF_IMAGE = {
    'info_document': 'info.json',
    'defaults': {
        'region': 'full',
        'size': 'max',
        'rotation': 0,
        'quality': 'default',
        'format': 'jpg',
    },
    'thumbnail_size_px': 200,
    # Image servers whose identifier follows a fixed number of path segments,
    # e.g. /iiif/2/<identifier> on Sipi.
    'prefix_segments': {
        'sipi': 2,
        'iiif': 2,
    },
    'degraded_extent_px': 2000,
}
