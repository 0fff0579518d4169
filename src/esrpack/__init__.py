"""esrpack: customized Firefox ESR installer packaging.

Downloads and unpacks the vendor installer, applies a declarative XML
manifest of file modifications onto the extracted tree, and copies the
result into a uniquely named package directory that can be published to
a content store and registered as a Configuration Manager application.
"""

__version__ = "0.1.0"
