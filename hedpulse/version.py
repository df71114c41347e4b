# Version of the package, read by the build backend as hedpulse.version.__version__
_version_major = 0
_version_minor = 3
_version_micro = 1  # use '' for first of series, number for 1 and above
_version_extra = ""
# _version_extra = ''  # Uncomment this for full releases

# Construct full version string from these.
_ver = [_version_major, _version_minor]
if _version_micro:
    _ver.append(_version_micro)
if _version_extra:
    _ver.append(_version_extra)

__version__ = ".".join(map(str, _ver))
