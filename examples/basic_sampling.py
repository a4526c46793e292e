# examples/basic_sampling.py

from openmm import unit

from crankmc import CalphaContactModel, Conformation, SamplerConfig, run_sampler
from crankmc.space import Draws

sequence = "MKTAYIAKQRQISFVKSHFSRQ/LEERLGLIEVQ"

# Hold the first residue of each chain in place
n = len(sequence.replace("/", ""))
fixed = [False] * n
fixed[0] = fixed[22] = True

conf = Conformation.from_sequence(sequence, Draws(seed=42), fixed=fixed)

model = CalphaContactModel(
    contact_distance=6.5 * unit.angstrom,
    clash_distance=4.0 * unit.angstrom,
)

config = SamplerConfig(
    name="basic",
    amplitude=-20 * unit.degrees,
    thermobeta=1.5,
    seed=42,
    log_path="basic.log",
)

result = run_sampler(conf, model, config, n_steps=20000, calibration_steps=4096)

print("Final energy (kJ/mol):", result.energy)
print("Acceptance:", result.acceptance)
print("Amplitude (rad):", result.amplitude)
result.save_pdb("basic_final.pdb")
