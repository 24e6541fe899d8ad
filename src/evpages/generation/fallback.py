"""Template content used when the generation service is unavailable.

Deterministic and offline: the same facts always produce the same intro and
the same five FAQ entries.
"""

from evpages.core.types import ContentFacts, FAQItem

# Battery size used for the "cost to charge" answer.
FAQ_BATTERY_KWH = 60


def fallback_intro(facts: ContentFacts) -> str:
    if facts.incentives:
        incentive_sentence = (
            f"{facts.region_name} residents can take advantage of several incentives, including "
            f"{facts.incentives[0]}, which can significantly reduce your upfront costs."
        )
    else:
        incentive_sentence = "Federal tax credits may be available to help offset installation costs."

    return (
        f"Installing an EV charger in {facts.name}, {facts.region_name} is becoming increasingly "
        f"popular as more residents make the switch to electric vehicles. With a population of "
        f"{facts.population:,}, {facts.name} is seeing growing demand for residential charging "
        "infrastructure.\n\n"
        f"The average cost to install a Level 2 EV charger in {facts.name} is approximately "
        f"${facts.avg_install_cost:,}, which includes the equipment and professional installation. "
        f"With local electricity rates at ${facts.electricity_rate:.2f} per kWh, charging your EV "
        "at home is both convenient and cost-effective.\n\n"
        f"{incentive_sentence} This guide will help you understand the process, costs, and options "
        f"for installing an EV charger at your {facts.name} home."
    )


def fallback_faq(facts: ContentFacts) -> list[FAQItem]:
    place = f"{facts.name}, {facts.region_name}"
    if facts.incentives:
        incentive_answer = (
            f"{facts.region_name} residents can access the following incentives: "
            f"{', '.join(facts.incentives)}. Check each program's eligibility rules, since many "
            "of them can be combined."
        )
    else:
        incentive_answer = (
            f"There are no incentive programs on record for {facts.region_name} right now. "
            "Check with your utility, as new programs are added regularly."
        )
    full_charge = facts.electricity_rate * FAQ_BATTERY_KWH

    return [
        FAQItem(
            question=f"How much does it cost to install an EV charger in {place}?",
            answer=(
                f"The average cost to install a Level 2 EV charger in {facts.name} is approximately "
                f"${facts.avg_install_cost:,}. This includes the charging equipment ($400-$800) and "
                "professional installation by a licensed electrician ($600-$1,500). Your final cost "
                "may vary based on your home's electrical panel capacity and the distance from the "
                "panel to your charging location."
            ),
        ),
        FAQItem(
            question=f"What incentives are available in {facts.region_name} for EV charger installation?",
            answer=incentive_answer,
        ),
        FAQItem(
            question=f"Do I need a permit to install an EV charger in {facts.name}?",
            answer=(
                f"Yes, most EV charger installations in {facts.name} require an electrical permit. "
                "Your licensed electrician will typically handle the permit application and ensure "
                f"the installation meets {facts.region_name} electrical codes and local building "
                "requirements."
            ),
        ),
        FAQItem(
            question=f"How long does EV charger installation take in {facts.name}?",
            answer=(
                f"Most residential EV charger installations in {facts.name} take 2-4 hours to "
                "complete. However, if your electrical panel needs upgrading or the charger location "
                "is far from the panel, installation may take longer and require additional work."
            ),
        ),
        FAQItem(
            question=f"What's the cost to charge an EV at home in {facts.name}?",
            answer=(
                f"With {facts.name}'s average electricity rate of ${facts.electricity_rate:.2f} per "
                f"kWh, charging a typical EV (with a {FAQ_BATTERY_KWH} kWh battery) from empty to "
                f"full costs approximately ${full_charge:.2f}. Most drivers charge overnight during "
                "off-peak hours, which may offer even lower rates."
            ),
        ),
    ]
