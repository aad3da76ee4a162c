from katsu import errors


def test_error_taxonomy():
    assert issubclass(errors.PathNotFoundError, errors.ManifestError)
    assert issubclass(errors.PathNotFoundError, FileNotFoundError)
    assert issubclass(errors.InvalidFlagError, errors.ManifestError)
    assert issubclass(errors.UnimplementedError, NotImplementedError)
    for exc in (errors.ManifestError, errors.MergeError, errors.UnimplementedError, errors.CommandError):
        assert issubclass(exc, errors.KatsuError)


def test_error_messages_identify_the_subject():
    assert "/etc/missing.yaml" in str(errors.PathNotFoundError("/etc/missing.yaml"))
    assert "dnf.packages" in str(errors.MergeError("dnf.packages", "list vs str"))
    err = errors.CommandError(["mkfs.ext4", "/dev/sda2"], 1, "no device")
    assert "mkfs.ext4 /dev/sda2" in str(err)
    assert err.returncode == 1
