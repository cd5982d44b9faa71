import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402
import pytest  # noqa: E402

from popmix.cli import main  # noqa: E402
from popmix.plotting import plot_qmatrix, plot_trace  # noqa: E402


class TestCLI:
    def test_writes_trace_and_qmatrix(self, tmp_path, capsys):
        out = tmp_path / "run"
        result = main([
            "--K", "2", "--burnin", "3", "--samples", "5",
            "--n_ind", "6", "--n_loci", "4", "--out", str(out),
        ])
        trace = pd.read_csv(out / "trace_K2.csv")
        assert len(trace) == 8
        q = pd.read_csv(out / "qmatrix_ind_K2.csv")
        assert list(q.columns) == ["IID", "deme1", "deme2"]
        assert len(q) == 6
        np.testing.assert_allclose(q[["deme1", "deme2"]].sum(axis=1), 1.0)
        assert result.K == 2
        assert "harmonic mean" in capsys.readouterr().out

    def test_parameter_file(self, tmp_path):
        params = tmp_path / "params.txt"
        params.write_text("K <- 3\nburnin <- 2\nsamples <- 4\nfixLabels_on <- false\n")
        out = tmp_path / "run"
        result = main(["--config", str(params), "--n_ind", "5", "--n_loci", "3", "--out", str(out)])
        assert result.K == 3
        assert (out / "trace_K3.csv").exists()
        assert not (out / "qmatrix_ind_K3.csv").exists()


class TestPlotting:
    def test_plot_qmatrix(self):
        Q = np.array([[0.2, 0.8], [0.9, 0.1], [0.5, 0.5]])
        ax = plot_qmatrix(Q, labels=["a", "b", "c"], order="dominant")
        # one bar per row and deme
        assert len(ax.patches) == 6
        assert ax.get_title() == "K = 2"
        plt.close("all")

    @pytest.mark.parametrize(
        "kwargs",
        [dict(Q=np.ones(3)), dict(Q=np.ones((2, 2)), labels=["a"]), dict(Q=np.ones((2, 2)), order="random")],
    )
    def test_plot_qmatrix_rejects(self, kwargs):
        with pytest.raises(ValueError):
            plot_qmatrix(**kwargs)

    def test_plot_trace(self):
        trace = pd.DataFrame({"iteration": [-1, 0, 1, 2], "logLikeGroup": [-9.0, -8.0, -7.0, -6.5]})
        ax = plot_trace(trace)
        x, _ = ax.lines[0].get_data()
        assert list(x) == [1, 2]
        ax = plot_trace(trace, include_burnin=True)
        x, _ = ax.lines[0].get_data()
        assert list(x) == [-1, 0, 1, 2]
        with pytest.raises(ValueError):
            plot_trace(trace, column="alpha")
        plt.close("all")
