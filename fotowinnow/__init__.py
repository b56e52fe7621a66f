"""FotoWinnow image processing service.

Produces the optimized and watermarked WebP derivatives served to
clients when a photographer shares an album.
"""

__version__ = "0.3.0"
