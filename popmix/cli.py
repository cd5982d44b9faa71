# cli.py
import argparse
import logging
from pathlib import Path

import numpy as np
import pandas as pd

from popmix.config import MCMCConfig
from popmix.mcmc import run_mcmc
from popmix.simulate import simulate_admixed_genotypes


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Simulate admixed genotypes and run the admixture MCMC at one K.")
    ap.add_argument("--config", type=str, default="", help="Parameter file with 'name <- value' lines")
    ap.add_argument("--K", type=int, default=2, help="Number of demes (ignored with --config)")
    ap.add_argument("--burnin", type=int, default=100, help="Burn-in iterations (ignored with --config)")
    ap.add_argument("--samples", type=int, default=500, help="Sampling iterations (ignored with --config)")
    ap.add_argument("--n_ind", type=int, default=50, help="Number of simulated individuals")
    ap.add_argument("--n_loci", type=int, default=20, help="Number of simulated loci")
    ap.add_argument("--J", type=int, default=4, help="Alleles per simulated locus")
    ap.add_argument("--K_true", type=int, default=2, help="Number of demes used to simulate")
    ap.add_argument("--missing", type=float, default=0.0, help="Probability a gene copy is missing")
    ap.add_argument("--seed", type=int, default=1, help="Random seed")
    ap.add_argument("--out", type=str, default="popmix_out", help="Output directory for CSV files")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log every iteration")
    return ap


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    if args.config:
        cfg = MCMCConfig.from_file(args.config)
        if cfg.seed is None:
            cfg.seed = args.seed
    else:
        cfg = MCMCConfig(K=args.K, burnin=args.burnin, samples=args.samples, seed=args.seed)

    rng = np.random.default_rng(cfg.seed)
    data = simulate_admixed_genotypes(
        args.n_ind, args.n_loci, K=args.K_true, J=args.J, missing=args.missing, seed=rng,
    )
    result = run_mcmc(data, cfg, rng=rng)

    out = Path(args.out)
    out.mkdir(parents=True, exist_ok=True)
    result.trace.to_csv(out / f"trace_K{cfg.K}.csv", index=False)
    if result.qmatrix_ind is not None:
        df = pd.DataFrame(result.qmatrix_ind, columns=[f"deme{k + 1}" for k in range(cfg.K)])
        df.insert(0, "IID", [f"ind{i + 1}" for i in range(data.n_ind)])
        df.to_csv(out / f"qmatrix_ind_K{cfg.K}.csv", index=False)

    print(f"K={cfg.K}: harmonic mean log evidence {result.harmonic:.3f}, "
          f"structure estimator {result.structure_estimator:.3f}, final alpha {result.alpha:.3f}")
    print(f"Wrote results to {out}")
    return result


if __name__ == "__main__":
    main()
