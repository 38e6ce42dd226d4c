import numpy as np
import pytest

from wannier_plots.cli import main, parse_args


@pytest.fixture
def band_npz(tmp_path):
    x = np.linspace(0.0, 1.0, 21)
    E = np.stack([np.cos(np.pi * x), np.cos(np.pi * x) + 2.0], axis=1)
    path = tmp_path / "band.npz"
    np.savez(path, x=x, eigenvalues=E, fermi_energy=0.5,
             symm_point_indices=[0, 10, 20], symm_point_labels=["GAMMA", "X", "M"])
    return path


def test_parse_args_requires_command():
    with pytest.raises(SystemExit):
        parse_args([])


def test_parse_args_flags():
    args = parse_args(["-vv", "dos", "in.npz", "--cumdos", "--no-show"])
    assert args.command == "dos"
    assert args.verbose == 2
    assert args.cumdos and args.no_show and not args.swap_axes


def test_band_command_writes_figure(band_npz, tmp_path):
    out = tmp_path / "band.png"
    rc = main(["band", str(band_npz), "--shift-fermi", "--no-show", "--save", str(out)])
    assert rc == 0
    assert out.exists()


def test_band_compare(band_npz, tmp_path):
    out = tmp_path / "diff.png"
    rc = main(["band", str(band_npz), "--compare", str(band_npz), "--no-show", "--save", str(out)])
    assert rc == 0
    assert out.exists()


def test_dos_command(tmp_path):
    e = np.linspace(-2.0, 2.0, 41)
    src = tmp_path / "dos.npz"
    np.savez(src, energies=e, dos=np.exp(-e**2))
    out = tmp_path / "dos.pdf"
    assert main(["dos", str(src), "--cumdos", "--swap-axes", "--no-show", "--save", str(out)]) == 0
    assert out.exists()


def test_missing_key_returns_error(tmp_path, caplog):
    src = tmp_path / "bad.npz"
    np.savez(src, energies=[0.0, 1.0])
    assert main(["dos", str(src), "--no-show"]) == 1
    assert "dos failed" in caplog.text


def test_missing_file_returns_error(tmp_path):
    assert main(["band", str(tmp_path / "nope.npz"), "--no-show"]) == 1


def test_bundles_are_closed(band_npz, tmp_path, monkeypatch):
    opened = []
    real_load = np.load

    def tracking_load(path, *args, **kwargs):
        f = real_load(path, *args, **kwargs)
        opened.append(f)
        return f

    monkeypatch.setattr("wannier_plots.cli.np.load", tracking_load)
    out = tmp_path / "diff.png"
    assert main(["band", str(band_npz), "--compare", str(band_npz), "--no-show", "--save", str(out)]) == 0
    assert len(opened) == 2
    assert all(f.fid is None for f in opened)
